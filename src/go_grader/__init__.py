"""go-grader: grades Go submissions against a hidden instructor test suite."""

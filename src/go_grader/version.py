from importlib.metadata import PackageNotFoundError, version


def harness_version() -> str:
    try:
        return version("go-grader")
    except PackageNotFoundError:
        return "0.0.0+dev"

"""Smoke tests: package and main modules import without error."""


def test_filedex_package_imports() -> None:
    """Package can be imported and carries a version."""
    import filedex

    assert filedex.__file__ is not None
    assert filedex.__version__


def test_main_module_imports() -> None:
    """CLI module exposes main and a parser with the expected modes."""
    from filedex.main import build_parser, main

    assert callable(main)
    args = build_parser().parse_args(["--dupes"])
    assert args.dupes is True
    assert args.updatedb is False

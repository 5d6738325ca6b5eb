"""Pytest configuration for the documentation examples under docs/."""

import os
from tempfile import TemporaryDirectory
from typing import Any

from sybil import Sybil
from sybil.parsers.markdown import PythonCodeBlockParser, SkipParser

_DOCS_DIR = os.path.join(os.path.dirname(__file__), "docs")


def _documentation_setup(namespace: dict[str, Any]) -> None:
    """Run each documentation page inside its own scratch directory."""
    scratch = TemporaryDirectory(prefix="odestep-docs-")
    namespace["_scratch"] = scratch
    namespace["_previous_cwd"] = os.getcwd()
    os.chdir(scratch.name)


def _documentation_teardown(namespace: dict[str, Any]) -> None:
    """Restore the working directory and remove the scratch directory."""
    os.chdir(namespace.pop("_previous_cwd"))
    namespace.pop("_scratch").cleanup()


pytest_collect_file = Sybil(
    parsers=[
        PythonCodeBlockParser(),
        SkipParser(),
    ],
    path=_DOCS_DIR,
    pattern="**/*.md",
    setup=_documentation_setup,
    teardown=_documentation_teardown,
).pytest()

"""Main CLI application using Cyclopts."""

import cyclopts

from searchrepo.cli.commands import indexes

app = cyclopts.App(
    name="searchrepo",
    help="Search repository - index lifecycle tools",
)

app.command(indexes.app, name="indexes")


def main() -> None:
    app()

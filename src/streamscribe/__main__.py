from streamscribe.cli import cli

cli()

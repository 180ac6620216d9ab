from sehri_milan.cli import cli

cli()

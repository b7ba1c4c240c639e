from md_converter.cli.main import cli

if __name__ == "__main__":
    cli()

from rvz_converter.cli import run

run()

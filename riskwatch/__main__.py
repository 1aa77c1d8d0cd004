from riskwatch.cli import run

run()

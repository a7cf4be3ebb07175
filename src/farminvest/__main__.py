from farminvest.main import run

run()

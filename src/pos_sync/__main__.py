from pos_sync.cli import run

run()

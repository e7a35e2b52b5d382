# scripts/run.py
from intunerun.cli import main

if __name__ == "__main__":
    main()

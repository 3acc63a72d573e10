import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'src'))

from runner.main import main as run_trading_clocks

def main():
    try:
        run_trading_clocks()
    except KeyboardInterrupt:
        print("\nShutdown requested by user")

if __name__ == "__main__":
    main()

"""
Entry point for the exam client CLI.

Run with:
    python main.py status
    python main.py take 1
"""
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from src.cli.exam_cli import run

if __name__ == "__main__":
    run()

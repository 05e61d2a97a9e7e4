import sys
import os

# Absolute path to project root, so that ``src.diboson`` is importable
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

sys.path.insert(0, PROJECT_ROOT)

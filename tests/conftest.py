import sys
from pathlib import Path

import pytest

# 專案根目錄放在 sys.path 最前面，讓 core / middleware / app 可直接 import
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def repeated_body():
    """大於預設壓縮門檻的重複文字"""
    return (b"The quick brown fox jumps over the lazy dog. " * 50)[:2000]

import json
import os
from functools import lru_cache

_ABI_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "abis")


@lru_cache(maxsize=None)
def _load_abi(name: str) -> list:
    path = os.path.join(_ABI_DIR, name)
    if not os.path.isfile(path):
        raise FileNotFoundError(f"ABI not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

def load_erc20_abi() -> list:
    return _load_abi("erc20_abi.json")

def load_router_abi() -> list:
    return _load_abi("router_v2_abi.json")

def load_factory_abi() -> list:
    return _load_abi("factory_v2_abi.json")

def load_pair_abi() -> list:
    return _load_abi("pair_v2_abi.json")

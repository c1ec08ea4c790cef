import json
from typing import Dict, Optional
import os
import portalocker
from portalocker import LOCK_EX


class BlockHeaderManager:
    """
    Local cache of merkle roots by block height, stored as JSON.
    Roots of confirmed blocks never change, so cached entries are trusted.
    """

    def __init__(self, file_path: Optional[str]):
        """
        :param file_path: JSON file for the cache, None keeps it in memory only.
        """
        self.file_path = file_path
        self.roots: Dict[str, str] = self.load()

    def load(self) -> Dict[str, str]:
        if not self.file_path:
            return {}
        try:
            with open(self.file_path, 'r') as f:
                portalocker.lock(f, LOCK_EX)
                data = json.load(f)
                return data if isinstance(data, dict) else {}
        except (FileNotFoundError, json.JSONDecodeError):
            return {}

    def get_root(self, height: int) -> Optional[str]:
        return self.roots.get(str(height))

    def put_root(self, height: int, merkle_root: str):
        self.roots[str(height)] = merkle_root

    def save(self):
        if not self.file_path:
            return
        directory = os.path.dirname(self.file_path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)

        with open(self.file_path, 'w') as f:
            portalocker.lock(f, LOCK_EX)
            json.dump(self.roots, f, indent=4)

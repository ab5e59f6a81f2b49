import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from proof_orchestrator.shared.exceptions import ConfigurationException

ABI_DIR = "abi"


class ResourceManager:
    """Loads contract ABIs bundled under proof_orchestrator/resources"""

    def __init__(self, resources_root: Optional[Path] = None):
        if resources_root is None:
            resources_root = Path(__file__).resolve().parents[2] / "resources"
        self._root = resources_root.resolve(strict=False)
        self._abis: Dict[str, List[Dict[str, Any]]] = {}

    def get_resource_path(self, resource_type: str, filename: str) -> Path:
        """Resolve a bundled file, refusing anything outside the resources tree"""
        base = (self._root / resource_type).resolve(strict=False)
        path = (base / filename).resolve(strict=False)
        if not path.is_relative_to(base) or not base.is_relative_to(self._root):
            raise ValueError(
                f"Resource {resource_type}/{filename} resolves outside {self._root}"
            )
        return path

    def load_abi(self, name: str) -> List[Dict[str, Any]]:
        """
        Load a contract ABI by name (file stem), cached after the first read.

        Raises:
            FileNotFoundError: if no ABI with that name is bundled
            ConfigurationException: if the file is not a JSON ABI array
        """
        if name in self._abis:
            return self._abis[name]

        abi_path = self.get_resource_path(ABI_DIR, f"{name}.json")
        if not abi_path.exists():
            raise FileNotFoundError(f"ABI file not found: {abi_path}")
        with open(abi_path) as f:
            abi = json.load(f)
        if not isinstance(abi, list):
            raise ConfigurationException(
                f"ABI {name} must be a JSON array, got {type(abi).__name__}"
            )

        self._abis[name] = abi
        return abi


# Read-only ABI cache shared by every Web3Service
resource_manager = ResourceManager()

"""Shared pytest fixtures for featurerules tests."""
import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import pytest
import yaml

from featurerules.api.features import Features
from featurerules.infrastructure.logger import Logger, LogLevel, set_global_logger


class ListHandler(logging.Handler):
    """Handler collecting formatted records in memory."""

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def log_handler() -> ListHandler:
    """In-memory log handler."""
    return ListHandler()


@pytest.fixture
def logger(log_handler: ListHandler) -> Logger:
    """Debug logger writing into ``log_handler``, installed globally."""
    log = Logger(name="featurerules", level=LogLevel.DEBUG, handlers=[log_handler])
    set_global_logger(log)
    return log


@pytest.fixture
def features() -> Features:
    """Feature store with flag, attribute, instance and multi-type features."""
    return Features(
        flags={
            "domain_1.kf_1": {"key-a", "key-b", "key-c"},
            "domain.mf": {"key-a", "key-b", "key-c"},
        },
        attributes={
            "domain_1.vf_1": {"key-1": "val-1", "keu-2": "val-2", "key-3": "val-3", "key-4": "val-4"},
            "domain.mf": {"key-d": "val-d", "key-e": "val-e"},
        },
        instances={
            "domain_1.if_1": [
                {"attr-1": "1", "attr-2": "val-2"},
                {"attr-1": "10", "attr-2": "val-20"},
                {"attr-1": "100", "attr-2": "val-200"},
                {"attr-1": "1000", "attr-2": "val-2000", "attr-3": "3000"},
            ],
        },
    )


@pytest.fixture
def node_feature_doc() -> Dict[str, Any]:
    """NodeFeature object as found in a YAML file."""
    return {
        "apiVersion": "nfd.k8s-sigs.io/v1alpha1",
        "kind": "NodeFeature",
        "metadata": {"name": "node-1"},
        "spec": {
            "features": {
                "flags": {
                    "cpu.cpuid": {"elements": {"AVX": {}, "AVX2": {}, "SSE4": {}}},
                },
                "attributes": {
                    "kernel.version": {
                        "elements": {"full": "6.5.0-generic", "major": "6", "minor": "5"}
                    },
                    "cpu.model": {"elements": {"vendor_id": "Intel", "family": "6"}},
                },
                "instances": {
                    "pci.device": {
                        "elements": [
                            {"attributes": {"class": "0300", "vendor": "8086"}},
                            {"attributes": {"class": "0200", "vendor": "15b3"}},
                        ]
                    },
                },
            }
        },
    }


@pytest.fixture
def write_yaml(temp_dir: Path):
    """Write YAML documents to a file in ``temp_dir`` and return its path."""

    def _write(name: str, *docs: Any) -> Path:
        path = temp_dir / name
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump_all(docs, f, sort_keys=False)
        return path

    return _write

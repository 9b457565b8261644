import logging
from abc import ABC, abstractmethod
from typing import Any

from .schemas import InventoryConfig

logger = logging.getLogger(__name__)


class DataPipeline(ABC):
    """
    Abstract base class for inventory pipelines (import, reconciliation).
    Follows an Extract -> Transform -> Load (ETL) pattern.
    """

    def __init__(self, report_type: str, config: InventoryConfig, test_mode: bool = False):
        self.report_type = report_type
        self.config = config
        self.test_mode = test_mode

    def run(self) -> Any:
        """
        Orchestrates the pipeline execution and returns whatever `load` produces.
        """
        logger.info(f"🚀 STEP: {self.report_type.upper()}")
        logger.info("-" * 30)

        # --- 1. EXTRACT ---
        raw_data = self.extract()
        if raw_data is None:
            logger.warning(f"⚠️ No data extracted for {self.report_type}.")
            return self.empty_result()

        # --- 2. TRANSFORM ---
        transformed = self.transform(raw_data)

        # --- 3. LOAD ---
        result = self.load(transformed)

        logger.info(f"✅ {self.report_type.capitalize()} pipeline finished.")
        logger.info("=" * 60)
        return result

    @abstractmethod
    def extract(self) -> Any:
        """Reads the pipeline's inputs. Returns None when there is nothing to process."""
        pass

    @abstractmethod
    def transform(self, raw_data: Any) -> Any:
        pass

    @abstractmethod
    def load(self, transformed: Any) -> Any:
        pass

    def empty_result(self) -> Any:
        return None

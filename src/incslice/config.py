"""Configuration management for the slice finding package."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging


@dataclass
class SliceFinderConfig:
    """Process-wide settings for slice finding.

    Run parameters (k, min_support, alpha, ...) are not stored here; they
    belong to ``RunParams`` and travel with the run state.

    Attributes:
        verbose: Enable verbose output
        suppress_prints: Suppress all print statements
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        state_dir: Default directory for persisted run states
        n_jobs: Default number of worker threads for blocked evaluation
    """

    verbose: bool = False
    suppress_prints: bool = True
    log_level: str = "WARNING"
    state_dir: Optional[Path] = None
    n_jobs: int = 1

    def __post_init__(self):
        """Initialize configuration from environment variables."""
        if os.getenv('INCSLICE_VERBOSE'):
            self.verbose = os.getenv('INCSLICE_VERBOSE', '').lower() == 'true'

        if os.getenv('INCSLICE_LOG_LEVEL'):
            self.log_level = os.getenv('INCSLICE_LOG_LEVEL', 'WARNING')

        if os.getenv('INCSLICE_STATE_DIR'):
            self.state_dir = Path(os.getenv('INCSLICE_STATE_DIR'))

        if os.getenv('INCSLICE_N_JOBS'):
            self.n_jobs = int(os.getenv('INCSLICE_N_JOBS', '1'))

        if self.state_dir is None:
            self.state_dir = Path.home() / '.cache' / 'incslice'

    def setup_logging(self):
        """Configure logging based on settings."""
        log_level = getattr(logging, self.log_level.upper(), logging.WARNING)
        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    def state_path(self, name: str) -> Path:
        """Resolve a state file name inside ``state_dir``, creating the directory."""
        self.state_dir.mkdir(parents=True, exist_ok=True)
        return self.state_dir / name


# Global configuration instance
config = SliceFinderConfig()

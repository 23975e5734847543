import logging
import os
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv

import config
from aspect_ratio import HttpAssetLoader
from compliance import ComplianceOrchestrator
from placements import PlacementStore
from print_areas import PrintFileCatalog
from printful import PrintfulAPI

logger = logging.getLogger(__name__)

# Load .env from root directory (parent of backend/)
root_env = Path(__file__).parent.parent / ".env"
load_dotenv(root_env)
load_dotenv()  # Also try local .env as fallback

# Tunables (env overrides the defaults in config.py)
PRINT_TOLERANCE_PERCENT = float(os.getenv("PRINT_TOLERANCE_PERCENT", config.STRICT_TOLERANCE_PERCENT))
ASSET_LOAD_TIMEOUT = float(os.getenv("ASSET_LOAD_TIMEOUT", config.ASSET_LOAD_TIMEOUT))
MIN_DESIGN_SIZE = float(os.getenv("MIN_DESIGN_SIZE", config.MIN_DESIGN_SIZE))

if not os.getenv("PRINTFUL_API_TOKEN"):
    logger.warning("PRINTFUL_API_TOKEN not set. Print area lookups will fail.")

# Service singletons
printful = PrintfulAPI()
asset_loader = HttpAssetLoader(timeout=ASSET_LOAD_TIMEOUT)
store = PlacementStore(min_size=MIN_DESIGN_SIZE)
orchestrator = ComplianceOrchestrator(store, asset_loader, timeout=ASSET_LOAD_TIMEOUT)

# product_id -> catalog; only successful lookups are kept
catalog_cache: Dict[int, PrintFileCatalog] = {}

"""Block ingestion: candidate extraction, block scans, dedup and the push/pull loop."""

from token_scanner.services.ingestion.block_processor import BlockProcessor, BlockStats
from token_scanner.services.ingestion.candidates import (
    PAIR_CREATED_TOPIC,
    TRANSFER_TOPIC,
    mint_filter,
    pair_filter,
    parse_deployment,
    parse_mint,
    parse_pair_created,
)
from token_scanner.services.ingestion.entity_processor import EntityProcessor
from token_scanner.services.ingestion.ingestion_loop import IngestionLoop, IngestionState

__all__ = [
    "BlockProcessor",
    "BlockStats",
    "EntityProcessor",
    "IngestionLoop",
    "IngestionState",
    "PAIR_CREATED_TOPIC",
    "TRANSFER_TOPIC",
    "mint_filter",
    "pair_filter",
    "parse_deployment",
    "parse_mint",
    "parse_pair_created",
]

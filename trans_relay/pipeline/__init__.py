# trans_relay/pipeline/__init__.py
"""翻译片段流水线：抽取、重建以及串联两者的文档级运行器。"""

from .extractor import FragmentExtractor
from .reconstructor import DocumentReconstructor, localize_url
from .runner import DocumentTranslationPipeline
from .skeleton import ExtractionResult, Skeleton, SlotState

__all__ = [
    "DocumentReconstructor",
    "DocumentTranslationPipeline",
    "ExtractionResult",
    "FragmentExtractor",
    "Skeleton",
    "SlotState",
    "localize_url",
]

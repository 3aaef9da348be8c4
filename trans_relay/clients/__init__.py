# trans_relay/clients/__init__.py
"""源 CMS 与目标 CMS 的 HTTP 客户端。"""

from .delivery import REPORT_LOCALIZED_FIELDS, StrapiDeliveryClient, normalize_payload
from .source import REPORT_POPULATE, StrapiSourceClient, build_http_client

__all__ = [
    "REPORT_LOCALIZED_FIELDS",
    "REPORT_POPULATE",
    "StrapiDeliveryClient",
    "StrapiSourceClient",
    "build_http_client",
    "normalize_payload",
]

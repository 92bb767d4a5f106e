from prometheus_fastapi_instrumentator import Instrumentator
from sellerdesk.api import version_prefix

instrumentator = Instrumentator(
    should_ignore_untemplated=True,
    excluded_handlers=["/metrics", f"{version_prefix}/health"],   # probes would drown the otp routes
    should_instrument_requests_inprogress=True,
    should_group_status_codes=False,
)

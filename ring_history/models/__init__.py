# Ring History — Database Models
# Import all models here for SQLAlchemy discovery

from ring_history.models.crawl_state import CrawlStateRecord        # noqa
from ring_history.models.cloud_event import CloudEventRecord        # noqa
from ring_history.models.cloud_video import CloudVideoRecord        # noqa
from ring_history.models.device_history import DeviceHistoryRecord  # noqa

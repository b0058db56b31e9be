from .podcasts import router as podcasts_router
from .topics import router as topics_router
from .episodes import router as episodes_router
from .settings import router as settings_router
from .digests import router as digests_router

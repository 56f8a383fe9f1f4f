# Import every model so Base.metadata and relationship() targets are complete
from app.db.session import Base  # noqa: F401
from app.models.admin import Admin  # noqa: F401
from app.models.court import Court  # noqa: F401
from app.models.time_slot import TimeSlot  # noqa: F401
from app.models.booking import Booking  # noqa: F401
from app.models.payment import Payment  # noqa: F401
from app.models.venue_payment import VenuePayment  # noqa: F401
from app.models.admin_notification import AdminNotification  # noqa: F401

from app.models.course import Batch, Course  # noqa: F401
from app.models.enrollment import Enrollment  # noqa: F401
from app.models.payment import Payment  # noqa: F401
from app.models.registration import Registration  # noqa: F401
from app.models.user import Profile, User, UserSession  # noqa: F401

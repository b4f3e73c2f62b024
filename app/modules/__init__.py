"""Domain modules package."""

from app.modules.audit import models as audit_models  # noqa: F401
from app.modules.change_requests import models as change_requests_models  # noqa: F401
from app.modules.classes import models as classes_models  # noqa: F401
from app.modules.faqs import models as faqs_models  # noqa: F401
from app.modules.identity import models as identity_models  # noqa: F401
from app.modules.notifications import models as notifications_models  # noqa: F401
from app.modules.reservations import models as reservations_models  # noqa: F401
from app.modules.scheduling import models as scheduling_models  # noqa: F401

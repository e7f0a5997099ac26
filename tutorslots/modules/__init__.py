"""Domain modules package."""

from tutorslots.modules.booking import models as booking_models  # noqa: F401
from tutorslots.modules.enrollments import models as enrollments_models  # noqa: F401
from tutorslots.modules.outbox import models as outbox_models  # noqa: F401
from tutorslots.modules.scheduling import models as scheduling_models  # noqa: F401
from tutorslots.modules.tutors import models as tutors_models  # noqa: F401

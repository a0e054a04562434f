from .common import *  # noqa
from .inventory import *  # noqa
from .procurement import *  # noqa
from .production import *  # noqa
from .orders import *  # noqa
from .audit import *  # noqa

# Outbox + webhook tables live with the event code
from app.events.outbox import *  # noqa
from app.events.subscriptions import *  # noqa

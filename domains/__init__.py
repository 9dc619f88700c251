"""Store domains.

Importing this package registers every mapped class with the shared
declarative Base, so relationships declared by name across domains
resolve and ``Base.metadata`` is complete.
"""

from domains.catalog.models import db_models as catalog_models  # noqa: F401
from domains.coupons.models import db_models as coupon_models  # noqa: F401
from domains.inventory.models import db_models as inventory_models  # noqa: F401
from domains.merchandising.models import db_models as merchandising_models  # noqa: F401
from domains.orders.models import db_models as order_models  # noqa: F401
from domains.pricing.models import db_models as pricing_models  # noqa: F401
from domains.seo.models import db_models as seo_models  # noqa: F401
from domains.settings.models import db_models as settings_models  # noqa: F401

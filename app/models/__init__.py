# Import every model so Base.metadata and the mapper registry see all tables
from app.models.user import User  # noqa: F401
from app.models.lab_test import LabTest  # noqa: F401
from app.models.order import Order, OrderItem, OrderStatusHistory, OrderStatus, PaymentMethod  # noqa: F401
from app.models.home_visit import HomeVisit, HomeVisitStatus  # noqa: F401
from app.models.report import Report  # noqa: F401

# importa tutti i modelli così i mapper si risolvono a vicenda (relationship per nome)
from .person import Person, EmailHistory, Customer, Employee, Artist  # noqa: F401
from .rbac import Role, Permission, PersonRole, role_permissions  # noqa: F401
from .catalog import Product, Song, AlbumSong  # noqa: F401
from .cart import CartItem  # noqa: F401
from .order import Order, OrderItem, Coupon, OrderCoupon  # noqa: F401

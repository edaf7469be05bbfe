# Models Package
# Pydantic records, tagged report variants and responses

from .master import *
from .transaction import *
from .resolution import *
from .query import *
from .reports import *
from .response import *
from .health import *

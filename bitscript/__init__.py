from .classify import *
from .consts import *
from .errors import *
from .hashes import *
from .interpreter import *
from .misc import *
from .packing import *
from .script import *
from .signature import *
from .tx import *
from .vectors import *

_version_str = '0.1'
_version = tuple(int(part) for part in _version_str.split('.'))

__all__ = sum((
    classify.__all__,
    consts.__all__,
    errors.__all__,
    hashes.__all__,
    interpreter.__all__,
    misc.__all__,
    packing.__all__,
    script.__all__,
    signature.__all__,
    tx.__all__,
    vectors.__all__,
), ())

from .base import IncrementalIterator as IncrementalIterator
from .base import IncrementalSolver as IncrementalSolver
from .base import solution as solution
from .finito import ActiveBatchCache as ActiveBatchCache
from .finito import Finito as Finito
from .finito import FinitoIterator as FinitoIterator
from .finito import FinitoState as FinitoState
from .sag import SAG as SAG
from .sag import SAGIterator as SAGIterator
from .sag import SAGState as SAGState
from .saga import SAGA as SAGA
from .saga import SAGAIterator as SAGAIterator
from .saga import SAGAState as SAGAState
from .svrg import SVRG as SVRG
from .svrg import SVRGIterator as SVRGIterator
from .svrg import SVRGState as SVRGState

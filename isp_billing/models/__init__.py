from .client import Client
from .debt import DebtRecord
from .expense import Expense
from .message import Message
from .setting import Setting

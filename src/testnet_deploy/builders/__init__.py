"""
Command line builders for the deployment tool.

Contains:
- arguments: ArgumentPlan with default/replace semantics
- programs: logical program name to Command resolution
- client_commands: benchmark client command lines
"""

from .arguments import Argument, ArgumentPlan
from .programs import Command, ProgramResolver, ProgramSpec

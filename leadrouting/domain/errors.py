"""Domain error taxonomy for lead routing."""


class RoutingError(Exception):
    """Base class for every error raised by the routing core."""


class ValidationError(RoutingError):
    """Malformed rule, condition, calendar or request input."""


class NotFoundError(RoutingError):
    pass


class LeadNotFound(NotFoundError):
    pass


class AgentNotFound(NotFoundError):
    pass


class CalendarNotFound(NotFoundError):
    pass


class RuleNotFound(NotFoundError):
    pass


class NoEligibleAgent(RoutingError):
    """Neither a rule match nor the balancer yielded a candidate."""


class AgentNotEligible(RoutingError):
    """The requested assignee cannot own leads (inactive or wrong role)."""


class StateConflictError(RoutingError):
    pass


class AlreadyAssigned(StateConflictError):
    pass


class LeadAlreadyClosed(StateConflictError):
    pass


class LeadNotAssigned(StateConflictError):
    pass


class CalendarExhausted(RoutingError):
    """A working-time walk ran past its day-step bound without finding working time."""

from .execution_context import ExecutionContext as ExecutionContext
from .execution_info import (
    ExecutionInfo as ExecutionInfo,
    ExecutionInfoTracker as ExecutionInfoTracker,
)
from .listener_invoker import (
    ExecutionContextListenerInvoker as ExecutionContextListenerInvoker,
    ExecutionListener as ExecutionListener,
)
from .load_balancer_command import LoadBalancerCommand as LoadBalancerCommand
from .retry_handler import (
    DefaultLoadBalancerRetryHandler as DefaultLoadBalancerRetryHandler,
    RequestSpecificRetryHandler as RequestSpecificRetryHandler,
    RetryHandler as RetryHandler,
    is_present_as_cause as is_present_as_cause,
)

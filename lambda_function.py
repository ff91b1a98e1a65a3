"""
Lambda function entry point for AWS Lambda deployments.
"""

# Configure logging first
from sqlscaler.common.logger import setup_logging

setup_logging()

from sqlscaler.main import lambda_handler


# The handler is specified in the Lambda configuration as "lambda_function.handler"
def handler(event, context):
    """
    AWS Lambda function handler that runs one scaler poll cycle.

    Args:
        event: AWS Lambda event object
        context: AWS Lambda context object

    Returns:
        Response from sqlscaler.main.lambda_handler
    """
    return lambda_handler(event, context)

# infra_cdk/project_cdk_stack.py
from aws_cdk import (
    Stack,
    Size,
    Duration,
    CfnParameter,
    RemovalPolicy,
    aws_lambda as _lambda,
    aws_logs as logs,
    aws_logs_destinations as logs_destinations,
    aws_s3 as s3,
    aws_apigatewayv2 as apigw,
    aws_apigatewayv2_integrations as apigw_integrations,
    aws_kinesisfirehose as firehose,
    CfnOutput
)
from constructs import Construct


class ProjectStack(Stack):
    '''
    Subscribes the parser Lambda to a function's CloudWatch log group, and
    exposes it over HTTP for pushing log lines by hand. Parsed records are
    delivered through Firehose to S3 as gzipped JSON lines.
    '''

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # === Parameters for Deployment ===
        source_log_group_param = CfnParameter(self, "SourceLogGroupName", type="String",
            description="The CloudWatch log group of the Lambda function whose logs should be parsed.")

        # === Define a Shared Lambda Layer ===
        # lambda_layer/python holds lambda_log_parser and its pip-installed dependencies
        parser_layer = _lambda.LayerVersion(self, "ParserLayer",
            code=_lambda.Code.from_asset("lambda_layer"),
            compatible_runtimes=[_lambda.Runtime.PYTHON_3_12],
            description="lambda_log_parser and its dependencies"
        )

        # === Parsed record delivery ===
        parsed_logs_bucket = s3.Bucket(self, "ParsedLogsBucket",
            removal_policy=RemovalPolicy.DESTROY,
            auto_delete_objects=True,
            block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
            encryption=s3.BucketEncryption.S3_MANAGED,
        )

        s3_dest = firehose.S3Bucket(
            parsed_logs_bucket,
            compression=firehose.Compression.GZIP,
            buffering_interval=Duration.seconds(60),
            buffering_size=Size.mebibytes(64)
        )

        delivery_stream = firehose.DeliveryStream(self, "ParsedLogsDeliveryStream",
            destination=s3_dest
        )

        # === Parser function ===
        parse_logs_function = _lambda.Function(self, "ParseLogsFunction",
            runtime=_lambda.Runtime.PYTHON_3_12,
            code=_lambda.Code.from_asset("lambdas/parse_logs"),
            handler="app.handler",
            environment={
                "DELIVERY_STREAM": delivery_stream.delivery_stream_name,
                "FUNCTION_RECORDS_ONLY": "true",
            },
            layers=[parser_layer],
            memory_size=256,
            timeout=Duration.seconds(30),
        )
        delivery_stream.grant_put_records(parse_logs_function)

        # The destination also grants CloudWatch Logs permission to invoke the function
        source_log_group = logs.LogGroup.from_log_group_name(self, "SourceLogGroup",
            source_log_group_param.value_as_string)
        logs.SubscriptionFilter(self, "SourceLogSubscription",
            log_group=source_log_group,
            destination=logs_destinations.LambdaDestination(parse_logs_function),
            filter_pattern=logs.FilterPattern.all_events(),
        )

        http_api = apigw.HttpApi(self, "LogParsingApi",
            cors_preflight={
                "allow_headers": ["Content-Type"],
                "allow_methods": [apigw.CorsHttpMethod.POST, apigw.CorsHttpMethod.OPTIONS],
                "allow_origins": ["*"],
            }
        )
        http_api.add_routes(
            path="/parse",
            methods=[apigw.HttpMethod.POST],
            integration=apigw_integrations.HttpLambdaIntegration("ParseIntegration", handler=parse_logs_function)
        )

        CfnOutput(self, "ApiUrl", value=f"{http_api.api_endpoint}/parse")
        CfnOutput(self, "ParsedLogsBucketName", value=parsed_logs_bucket.bucket_name)
        CfnOutput(self, "DeliveryStreamName", value=delivery_stream.delivery_stream_name)
        CfnOutput(self, "ParseLogsFunctionArn", value=parse_logs_function.function_arn)

# tests/test_infra_stack.py
import os
import shutil

import pytest

# Synthesizing needs the CDK library and a Node.js runtime for jsii
pytest.importorskip("aws_cdk")
if shutil.which("node") is None:
    pytest.skip("Node.js is required to synthesize CDK stacks", allow_module_level=True)

from aws_cdk import App
from aws_cdk.assertions import Match, Template

from infra_cdk.project_cdk_stack import ProjectStack

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


@pytest.fixture(scope="module")
def template() -> Template:
    # Asset paths in the stack are relative to the project root
    cwd = os.getcwd()
    os.chdir(ROOT_DIR)
    try:
        stack = ProjectStack(App(), "LambdaLogParserTest")
        return Template.from_stack(stack)
    finally:
        os.chdir(cwd)


def test_parser_function_forwards_to_firehose(template: Template):
    template.has_resource_properties("AWS::Lambda::Function", {
        "Handler": "app.handler",
        "Runtime": "python3.12",
        "Environment": {
            "Variables": Match.object_like({"DELIVERY_STREAM": Match.any_value()})
        },
    })
    template.resource_count_is("AWS::KinesisFirehose::DeliveryStream", 1)


def test_log_group_is_subscribed(template: Template):
    template.resource_count_is("AWS::Logs::SubscriptionFilter", 1)
    template.has_resource_properties("AWS::Logs::SubscriptionFilter", {
        "LogGroupName": {"Ref": "SourceLogGroupName"},
        "FilterPattern": "",
    })


def test_parse_route_is_exposed(template: Template):
    template.has_resource_properties("AWS::ApiGatewayV2::Route", {
        "RouteKey": "POST /parse",
    })

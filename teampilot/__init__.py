"""
TeamPilot - a Slack assistant that routes messages to canned responses, Jira and Salesforce actions, or a hosted LLM.
"""

__version__ = "0.1.0"

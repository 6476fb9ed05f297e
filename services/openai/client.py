"""Construction of the shared async OpenAI client."""

from __future__ import annotations

from openai import AsyncAzureOpenAI, AsyncOpenAI

from config import Settings


def build_openai_client(settings: Settings) -> AsyncOpenAI:
    """Return the async client for either OpenAI or an Azure deployment.

    Raises:
        RuntimeError: If the required credentials are not configured.
    """
    if settings.azure_on:
        if not settings.azure_openai_token or not settings.azure_resource_name:
            raise RuntimeError("AZURE_OPENAI_TOKEN and AZURE_RESOURCE_NAME must be set when AZURE_ON is enabled")
        return AsyncAzureOpenAI(
            api_key=settings.azure_openai_token,
            api_version=settings.azure_api_version,
            azure_endpoint=f"https://{settings.azure_resource_name}.openai.azure.com",
            azure_deployment=settings.azure_deployment_name or None,
            timeout=settings.openai_timeout,
        )

    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_KEY environment variable is not set")
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_api_url,
        timeout=settings.openai_timeout,
    )


def chat_model_name(settings: Settings) -> str:
    """Azure routes by deployment, so the deployment name doubles as model."""
    if settings.azure_on and settings.azure_deployment_name:
        return settings.azure_deployment_name
    return settings.openai_model

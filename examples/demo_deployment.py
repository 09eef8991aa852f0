from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from solana_deploy_finder.auto_config.environment import get_config
from solana_deploy_finder.auto_config.logging_config import setup_logging
from solana_deploy_finder.constants import TOKEN_PROGRAM_ID
from solana_deploy_finder.deployments.resolver import DeploymentResolver


def demo_find_token_program_deployment():
    """
    Resolve the first deployment of the SPL token program. The signature
    history is long, so expect this to take a while on a public RPC.
    """
    resolver = DeploymentResolver.from_config(get_config())
    result = resolver.resolve_first_deployment(TOKEN_PROGRAM_ID, strict=False)
    print(f"{TOKEN_PROGRAM_ID} first deployed at {result.render(human=True)}")
    print(f"Transaction: {result.explorer_url}")


if __name__ == "__main__":
    setup_logging('INFO')
    with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
        ) as progress:
        progress.add_task(description="[blue]Walking signature history...", total=None)
        demo_find_token_program_deployment()

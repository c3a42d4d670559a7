from agrisys.tools.simulation_manager import cli

if __name__ == '__main__':
    cli()

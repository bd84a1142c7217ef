from gplink.compile.command import CLEANUP_COMMANDS, CompiledPlot, compile_plot, default_binary, draw_options

__all__ = ["CLEANUP_COMMANDS", "CompiledPlot", "compile_plot", "default_binary", "draw_options"]

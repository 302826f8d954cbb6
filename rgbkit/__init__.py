"""Game Boy development toolkit: ROM header fixing, cartridge types, assembler symbols, diagnostics and colours."""

__version__ = "0.1.0"

__all__ = ["diagnostics", "errors", "fixcli", "header", "mbc", "rgba", "symbols"]
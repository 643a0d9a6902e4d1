"""
Lark Grammar for the layer DSL

Only ``model.add(<Constructor>(<arguments>))`` statements are described
here; the parser selects those statements from the source before handing
them to Lark, so unrelated Python lines never reach the grammar.
"""

GRAMMAR = r'''
// =============================================================================
// Statement
// =============================================================================

start: statement+

statement: NAME "." NAME "(" call ")" ";"?

call: dotted_name "(" [arguments] ")"

dotted_name: NAME ("." NAME)*

// =============================================================================
// Arguments
// =============================================================================

arguments: argument ("," argument)* ","?

argument: NAME "=" value    -> keyword_argument
        | value             -> positional_argument

// =============================================================================
// Values
// =============================================================================

value: INT                              -> int_value
     | FLOAT                            -> float_value
     | STRING                           -> string_value
     | NAME                             -> name_value
     | "(" [value ("," value)* ","?] ")"  -> tuple_value

// =============================================================================
// Terminals
// =============================================================================

NAME: /[a-zA-Z_][a-zA-Z0-9_]*/
FLOAT.2: /[0-9]+\.[0-9]+([eE][+-]?[0-9]+)?/
INT: /[0-9]+/
STRING: /"[^"]*"/ | /'[^']*'/

COMMENT: /#[^\n]*/

%import common.WS
%ignore WS
%ignore COMMENT
'''
